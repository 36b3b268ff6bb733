"""Document layer: node trees, reference resolution, index and doctor views."""
