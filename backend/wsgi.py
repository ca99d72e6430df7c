from storetrack import create_app

app = create_app()
