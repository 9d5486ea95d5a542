"""Image upload, storage and retrieval for the gallery.

Uploaded images live in three places:
- the blob store: a directory on disk holding the bytes
- the metadata store: a MongoDB collection with one document per upload
- the path cache: a Redis list of every uploaded file's public path

Nothing keeps the three in lockstep.  The reconciliation routine in
``service.GalleryService.reconcile`` prunes cache entries whose file is gone
and is run by every read endpoint and by the periodic sweeper.
"""
