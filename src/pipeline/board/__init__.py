"""Pipeline board -- schemas, forecast engine, in-memory store and snapshot format.

Provides Pydantic schemas (Stage, Card, Board, Forecast), the pure weighted
forecast (calculate_weighted_pipeline), BoardStore for synchronous all-or-nothing
mutations, and the JSON snapshot/export format.
"""
