"""Roster attendance package.

Organized by feature modules (roster, attendance) with a thin Flask
controller layer over service/repository layers. The remote attendance and
roster services are reached over HTTP through ``api.connection``.
"""
