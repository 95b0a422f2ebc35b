"""Core library: stack registry, World definition files and repository layouts."""
