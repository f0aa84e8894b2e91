"""Domain layer for dealerbooks application.

Services live in their own modules (``dealerbooks.domain.importer``,
``dealerbooks.domain.journal``, ...). Nothing is re-exported here because
the database layer imports ``dealerbooks.domain.entities`` at load time.
"""
