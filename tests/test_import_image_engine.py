def test_public_api_imports():
    import photo_gallery.image_engine as engine

    for name in engine.__all__:
        assert hasattr(engine, name), name
