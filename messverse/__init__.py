"""
Backend for the MessVerse gallery site.

Member portraits and the memories gallery are stored as metadata in a SQL
database, with the image bytes kept on Cloudinary.
"""
