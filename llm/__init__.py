LLMS = {
    "OpenAIClient": "llm.openai_client",
    "EchoLLM": "llm.echo",
}
