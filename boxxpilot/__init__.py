"""BoxxPilot API - moving-company job lifecycle service"""
