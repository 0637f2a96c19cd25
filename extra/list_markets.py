import requests

COINS = [
    "BTC", "ETH", "LTC", "XRP", "BCH", "EOS", "TRX", "LINK", "XMR", "USDT",
]
QUOTES = ["USD", "USDT", "BTC"]

SUMMARY_URL = "https://api.btse.com/spot/api/v3.1/market_summary"

def check_btse_markets():
    try:
        r = requests.get(SUMMARY_URL, timeout=10)
        markets = {m["symbol"]: m for m in r.json()}
    except Exception as e:
        print(f"[market_summary] ERROR: {e}")
        return

    for coin in COINS:
        for quote in QUOTES:
            symbol = f"{coin}-{quote}"
            m = markets.get(symbol)

            # Market does not exist
            if m is None:
                continue

            active = "✅" if m.get("active") else "⏸️"
            print(f"[{symbol}] {active} | last={m.get('last', 'n/a')} "
                  f"| lot={m.get('minSizeIncrement', 'n/a')} | tick={m.get('minPriceIncrement', 'n/a')}")

        if not any(f"{coin}-{q}" in markets for q in QUOTES):
            print(f"[{coin}] ❌ No market")

if __name__ == "__main__":
    check_btse_markets()
