"""Enhanced listing module -- tenant-scoped search, filters, sorting and facets.

Components:
- params: query-string parsers that reject bad input with named fields
- composer: TenantQueryComposer, which builds page, count and facet statements
- listings: one ListingSpec per entity (animals, feed, devices, readings, tasks)
- derived: read-time derived fields computed against one snapshot instant
- pagination: page arithmetic shared by every listing
- analytics: tenant-wide feed inventory aggregates
"""
