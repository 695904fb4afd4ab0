"""
The `database` package holds Hive's persistence layer: configuration,
ORM entities, data access objects and the service functions the API
layer calls.
"""
