"""Screen runtime, serializer, scenes, and the headless frame protocol."""
