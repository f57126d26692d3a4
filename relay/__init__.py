"""
Relay service between the project-board front-end and its backing services.

This package provides a FastAPI application that reads and writes Airtable
records, stores uploads in Google Cloud Storage, and fans chat messages out to
WebSocket rooms.
"""
