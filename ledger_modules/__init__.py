"""
Document pipelines built on the ledger kernel: purchasing, sales,
manufacturing and recurring postings.
"""
