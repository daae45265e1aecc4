"""
AgriSense Bridge

A small Flask service that keeps the farm dashboard's data on the server:
soil readings from the Oracle APEX sensor collection, the Open-Meteo
forecast, and Gemini-generated recommendations and chat replies.
"""

__version__ = "2.0.0"
