"""Integration layer for Research Agent: DTOs exposed over the API."""
