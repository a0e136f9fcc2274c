"""
Transient Cache Domain Module

Domain-Driven Design implementation of the stale-while-revalidate cache.
Contains value objects, entities, exceptions, collaborator interfaces,
invalidation predicates and compute strategies.
"""
