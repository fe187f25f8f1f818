"""Huddle realtime building blocks shared by the API application."""
