"""Dynamic tool layer: descriptors, routing, coercion and resolution."""
