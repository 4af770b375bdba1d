"""
Attendance Kiosk - Face Recognition Attendance and Enrollment

A Flask service for a webcam attendance kiosk: captures a photo, extracts a
face embedding with InsightFace and matches it against student embeddings
stored in a hosted Supabase database.
"""

__version__ = "1.0.0"
__author__ = "Attendance Kiosk Team"
