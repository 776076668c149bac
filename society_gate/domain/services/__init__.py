"""Verification core services: credential store, transition engine, ledger, gateway"""
