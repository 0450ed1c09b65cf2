"""
GraphQL service package.

Activates a GraphQL endpoint for a component directory: the component
supplies resolvers, schema files and optionally a cache and plugins; the
service composes the schema, starts the engine and answers ``/graphql``
ahead of its own routes.

Structure:
- app.main: Host service, routes and lifespan wiring.
- app.extension: Startup sequence and module resolution.
- app.bridge: HTTP handler translating requests for the engine.
- app.engine: Ariadne-backed execution with persisted queries.
- app.schema: Base schema fragment and glob composition.
- app.caching: Key-value cache over Redis or in-memory record stores.
- app.config: Extension options.
"""
