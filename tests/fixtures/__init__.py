"""Shared test doubles and builders."""
