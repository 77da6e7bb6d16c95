"""Analysis stages: column profiling and relationship inference."""
