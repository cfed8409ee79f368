"""Domain packages - calendar events and staff assignments"""
