"""Provider adapters implementing BaseLLMClient."""
