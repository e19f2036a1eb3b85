"""
School Admin Backend — Services
=================================

    store.py      DocumentStore: label/id documents over the blocks table
    tokens.py     TokenService: long token signing and verification (PyJWT)
    passwords.py  PasswordHasher: bcrypt off the event loop
"""
