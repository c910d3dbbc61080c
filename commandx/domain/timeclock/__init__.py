"""Time clock with geofenced location checks"""
