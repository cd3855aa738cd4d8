"""Quotation domain - drafts, sending and customer response"""
