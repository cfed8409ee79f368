"""Staffing domain - staff to team assignments per day"""
