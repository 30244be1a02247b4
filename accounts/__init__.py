"""Account, credential and session core for the storefront back office"""
