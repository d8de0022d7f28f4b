"""Runtime layers: domain, storage, events, planning, workflow and API."""
