"""Domain packages - quotations, jobs and scheduling"""
