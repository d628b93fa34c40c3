"""Core queue, dispatcher and hook implementation."""
