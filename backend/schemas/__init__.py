"""Pydantic schemas shared by services and routers."""
