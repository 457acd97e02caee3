"""
Seed Cosmos DB and Service Bus from JSON files, and export Cosmos DB back to seed files.
"""

__version__ = "1.0.0"
