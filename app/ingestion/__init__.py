"""
app/ingestion package marker.
"""
