"""
barberbook - booking client for the barbershop agenda.
"""

__version__ = "0.3.0"
