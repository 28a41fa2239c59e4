"""Domain rules for calendars, notifications and historical records"""
