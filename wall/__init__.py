"""
The Wall: a shared, realtime message feed.

Visitors pick a display name, then read and post short text/photo messages.
Profiles and posts live in a relational store, photos in S3-compatible object
storage, and inserts are fanned out to open browsers over a pub/sub channel.
Every backend has an in-memory stand-in so the app runs with no services.
"""
