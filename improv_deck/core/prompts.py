"""
Prompt templates for the topic and outline requests.
"""

from textwrap import dedent

TOPIC_PROMPT = dedent("""
    You are an expert improvisational slide deck creator.
    Generate the outline for a random slide deck.
    Tell me only the topic, not anything else. Do not include a prelude, an explanation, or anything
    other than the topic itself.

    <example>
    The Habits of Wealthy Chimpanzees
    </example>
""").strip()

OPENING_SLIDE_INSTRUCTION = (
    "Ensure the first slide has the title along with a made-up name and a description "
    "of that person's job title or career accomplishments."
)

OUTLINE_SCHEMA = dedent("""
    {
      "$schema": "https://json-schema.org/draft/2020-12/schema",
      "type": "object",
      "properties": {
        "title": {
          "type": "object",
          "properties": { "content": { "type": "string" } },
          "required": ["content"]
        },
        "presenter": {
          "type": "object",
          "properties": {
            "name": { "type": "string" },
            "title": { "type": "string" }
          },
          "required": ["name", "title"]
        },
        "slides": {
          "type": "array",
          "items": {
            "type": "object",
            "oneOf": [
              {
                "properties": {
                  "title": {
                    "type": "object",
                    "properties": { "content": { "type": "string" } },
                    "required": ["content"]
                  },
                  "presenter": {
                    "type": "object",
                    "properties": {
                      "name": { "type": "string" },
                      "title": { "type": "string" }
                    },
                    "required": ["name", "title"]
                  }
                },
                "required": ["title", "presenter"],
                "unevaluatedProperties": false
              },
              {
                "properties": {
                  "image": {
                    "type": "object",
                    "properties": { "description": { "type": "string" } },
                    "required": ["description"]
                  }
                },
                "required": ["image"],
                "unevaluatedProperties": false
              }
            ]
          },
          "minItems": 1
        }
      },
      "required": ["slides"]
    }
""").strip()

OUTLINE_PROMPT_TEMPLATE = dedent("""
    You are an expert improvisational slide deck creator.
    Generate the outline for a random slide deck.
    The slide deck should be pretty barebones to allow a presenter to improvise their way through.
    This slide deck will be used in improv competitions, so it should not be continuous in topic
    from slide to slide. Ensure that there are a few completely surprising left turns to keep things
    dynamic. The slides should not tell the whole story in order to leave room for the improviser to
    justify the slides contents.

    The presentation topic is "{topic}".

    Focus more heavily on images instead of text on the slides. Any text you generate should be
    overlaid onto images. Assume that the image URLs will be provided elsewhere, but describe them in
    the JSON format I describe below. Only up to {total_text_slides} slides should contain text (you
    will need to specify the text in the image prompts).
    {opening_slide}
    The last slide should contain the words "in conclusion" and a random image.
    Generate {total_slides} slides, including the slides I've already described.
    {avoid_note}
    Output in JSON format using the following schema. Do NOT provide any context, prelude, or
    explanation; only give back the JSON.
    ```
    {schema}
    ```
""").strip()


def build_outline_prompt(
    topic: str,
    total_slides: int,
    total_text_slides: int,
    include_opening_slide: bool = False,
    avoid_subjects: list = None,
) -> str:
    """
    Build the outline request for a topic.

    Args:
        topic: Presentation topic
        total_slides: Number of slides to ask for
        total_text_slides: Upper bound on slides carrying text
        include_opening_slide: Ask for a title slide with a made-up presenter
        avoid_subjects: Subjects to steer away from (optional)

    Returns:
        Prompt text
    """
    avoid_note = ""
    if avoid_subjects:
        avoid_note = f"\nTry to avoid slides with {_join_subjects(avoid_subjects)}.\n"

    return OUTLINE_PROMPT_TEMPLATE.format(
        topic=topic,
        total_slides=total_slides,
        total_text_slides=total_text_slides,
        opening_slide=OPENING_SLIDE_INSTRUCTION if include_opening_slide else "",
        avoid_note=avoid_note,
        schema=OUTLINE_SCHEMA,
    )


def _join_subjects(subjects: list) -> str:
    if len(subjects) == 1:
        return subjects[0]
    return ", ".join(subjects[:-1]) + f", or {subjects[-1]}"
