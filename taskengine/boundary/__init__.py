"""
Boundary layer: adapters to the relational store and the embedding service.
"""
