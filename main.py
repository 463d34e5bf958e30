from fjud.scraper.run import _cli_entrypoint

if __name__ == "__main__":
    # python main.py --start 2019-07-01 --end 2019-07-31 -d downloads
    raise SystemExit(_cli_entrypoint())
