"""Cart pricing engine.

Turns a cart, the customer's context and the store's pricing configuration
into one reconciled price breakdown: line prices, discounts, shipping, tax
and the grand total.
"""
