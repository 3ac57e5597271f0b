from app.core.pipeline import build_default_pipeline


async def main():
    # Build the same pipeline the server uses
    pipeline = build_default_pipeline()

    # Show which models can answer right now
    for card in pipeline.registry.list_available():
        status = "ready" if card["available"] else card.get("message", "unavailable")
        print(f"{card['id']}: {status}")

    # Generate a response on the default model
    result = await pipeline.generate("Hello, how are you?", None)
    for notice in result.notices:
        print(f"[{notice}]")
    print(f"Model response ({result.resolved_model_id}): {result.text}")

if __name__ == "__main__":
    import asyncio
    asyncio.run(main())
