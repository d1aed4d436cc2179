"""Funds transfer service: accounts, paired ledger entries and the transfer engine."""
