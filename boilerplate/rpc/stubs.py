"""
Message classes and service stubs compiled from protos/guest.proto by grpcio-tools
when first imported. The proto path is resolved against sys.path, so the directory
holding the boilerplate package must be importable (it is once installed).
"""
import grpc

PROTO_PATH = "boilerplate/rpc/protos/guest.proto"

guest_pb2, guest_pb2_grpc = grpc.protos_and_services(PROTO_PATH)
