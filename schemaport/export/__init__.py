"""Export definitions: model, builder, service and snapshots."""
