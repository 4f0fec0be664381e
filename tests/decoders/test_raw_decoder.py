from fsd_pipeline_mcp.decoders.raw.decoder import RawDecoder, build_decoder


def test_raw_decoder_passes_line_through():
    dec = build_decoder()
    assert dec.can_handle("anything at all")
    msg = dec.decode("HELLO:WORLD")
    assert msg.type == "RAW"
    assert msg.raw == "HELLO:WORLD"
    assert msg.fields == {"message": "HELLO:WORLD", "length": 11}


def test_raw_decoder_metadata():
    assert RawDecoder().metadata() == {
        "name": "raw",
        "version": "1.0.0",
        "description": "Raw pass-through decoder",
    }
