"""School Attendance client package.

This package is organized by feature modules (attendance, requests, session, ...)
with a thin Flask controller layer and SOLID service/repository layers talking
to the school platform REST API.
"""
