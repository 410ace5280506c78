"""Docker Catalog Sync (DCS).

Keeps a Consul catalog in step with the containers running on one Docker host:
 - every exposed port of a running container becomes a catalog service
 - containers that stop are removed from the catalog
 - each service is TCP-probed on an interval and its check status updated

Nothing is persisted; state is rebuilt from Docker and the catalog at startup.
"""
